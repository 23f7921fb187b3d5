import re

PLAYWRIGHT_IMPORT = "import { expect, test } from '@playwright/test';"
_CANONICAL_NAMES = ("expect", "test")

_FENCE = re.compile(r"```(?:typescript|ts|javascript|js)?\n?")
_NAMED_PLAYWRIGHT_IMPORT = re.compile(
    r"^[ \t]*import\s+(type\s+)?\{([^}]*)\}\s*from\s+['\"]@playwright/test['\"];?[ \t]*(?:\n|$)",
    re.MULTILINE,
)
_PLAYWRIGHT_IMPORT_LINE = re.compile(r"^\s*import\s.*from\s+['\"]@playwright/test['\"];?\s*$")


def js_string(value: str) -> str:
    """Single-quoted TypeScript string literal."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'").replace("\n", "\\n")
    return f"'{escaped}'"


def strip_code_fences(text: str) -> str:
    if not text:
        return ""
    cleaned = _FENCE.sub("", text)
    cleaned = re.sub(r"```$", "", cleaned.strip())
    return cleaned.strip()


def ensure_playwright_import(code: str) -> str:
    """Fold every named ``@playwright/test`` import into one leading line.

    ``test`` and ``expect`` always come first; other names the code imported
    (``Page``, ``test as base`` ...) are kept after them.
    """
    extra = []

    def _collect(match: re.Match) -> str:
        prefix = "type " if match.group(1) else ""
        for name in match.group(2).split(","):
            name = " ".join(name.split())
            if not name or name in _CANONICAL_NAMES:
                continue
            if f"{prefix}{name}" not in extra:
                extra.append(f"{prefix}{name}")
        return ""

    body = _NAMED_PLAYWRIGHT_IMPORT.sub(_collect, code).lstrip()
    # fixtures files declare their own `test` (const test = base.extend(...))
    canonical = [n for n in _CANONICAL_NAMES if not re.search(rf"\b(?:const|let|var)\s+{n}\b", body)]
    if not extra and len(canonical) == len(_CANONICAL_NAMES):
        return f"{PLAYWRIGHT_IMPORT}\n\n{body}"
    names = ", ".join(canonical + extra)
    return f"import {{ {names} }} from '@playwright/test';\n\n{body}"


def clean_generated_code(code: str) -> str:
    """Strip markdown fences and make sure the canonical test/expect import leads the file."""
    return ensure_playwright_import(strip_code_fences(code))


def is_playwright_import(line: str) -> bool:
    return bool(_PLAYWRIGHT_IMPORT_LINE.match(line))


def collapse_playwright_imports(code: str) -> str:
    """Keep only the first ``@playwright/test`` import line."""
    seen = False
    lines = []
    for line in code.splitlines():
        if is_playwright_import(line):
            if seen:
                continue
            seen = True
        lines.append(line)
    return "\n".join(lines)
