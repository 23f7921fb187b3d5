"""Minimal seed corpus written when the knowledge base is empty."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List

logger = logging.getLogger(__name__)

LOGIN_SELECTORS = """---
type: selector
category: authentication
---

# Login Selectors

## Username Input
```
page.getByLabel('Username')
page.getByTestId('username-input')
page.locator('input[name="username"]')
```

## Password Input
```
page.getByLabel('Password')
page.getByTestId('password-input')
page.locator('input[name="password"]')
```

## Login Button
```
page.getByRole('button', { name: /sign in|login/i })
page.getByTestId('login-button')
```
"""

AUTHENTICATION_WORKFLOW = """---
type: workflow
category: authentication
---

# Authentication Workflow

## Standard Login Flow
1. Navigate to login page
2. Fill username field
3. Fill password field
4. Click login button
5. Wait for dashboard to load

## Code Example
```typescript
await page.goto(process.env.BASE_URL + '/login');
await page.getByLabel('Username').fill(process.env.TEST_EMAIL!);
await page.getByLabel('Password').fill(process.env.TEST_PASSWORD!);
await page.getByRole('button', { name: /sign in/i }).click();
await expect(page.getByRole('heading', { name: /dashboard/i })).toBeVisible();
```
"""

COMMON_PATTERNS = """---
type: pattern
category: best-practices
---

# Common Playwright Patterns

## Waiting for Elements
```typescript
// Good - use expect with timeout
await expect(page.locator('.loading')).toBeVisible();
await expect(page.locator('.loading')).toBeHidden();

// Better - wait for specific state
await page.waitForLoadState('networkidle');
```

## Form Interactions
```typescript
await page.getByLabel('Email').fill(process.env.TEST_EMAIL!);
await page.getByLabel('Password').fill(process.env.TEST_PASSWORD!);
await page.getByRole('button', { name: /submit|save/i }).click();
```

## Navigation
```typescript
await page.goto('/dashboard');
await page.waitForLoadState('networkidle');
await expect(page.getByRole('heading', { name: /dashboard/i })).toBeVisible();
```
"""

SEED_DOCUMENTS: Dict[str, str] = {
    "selectors/login.md": LOGIN_SELECTORS,
    "workflows/authentication.md": AUTHENTICATION_WORKFLOW,
    "patterns/common-patterns.md": COMMON_PATTERNS,
}


def seed_knowledge_base(root: Path) -> List[Path]:
    root = Path(root)
    written: List[Path] = []
    for rel, content in SEED_DOCUMENTS.items():
        target = root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        written.append(target)
    logger.info("[Loader] Created %d sample knowledge base files under %s", len(written), root)
    return written
