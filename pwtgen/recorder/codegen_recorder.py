"""Use Playwright's official codegen to capture steps as a TypeScript test."""

import logging
import re
import subprocess
import sys
import textwrap
from pathlib import Path
from typing import List, Optional

from ..core.errors import RecorderError

logger = logging.getLogger(__name__)

_IMPORT_LINE = re.compile(r"^\s*import\s[^\n]*\n?", re.MULTILINE)
_TEST_OPEN = re.compile(
    r"\btest\s*\(\s*(['\"`]).*?\1\s*,\s*async\s*\([^)]*\)\s*=>\s*\{",
    re.DOTALL,
)
_GOTO = re.compile(r"^([ \t]*)(await page\.goto\((['\"]).+?\3\);?)", re.MULTILINE)


class CodegenRecorder:
    def __init__(self, command: Optional[List[str]] = None, timeout: int = 600):
        self.command = list(command or [sys.executable, "-m", "playwright", "codegen"])
        self.timeout = timeout

    def build_command(self, url: str, output_path: Path) -> List[str]:
        cmd = [*self.command, "--target", "playwright-test", "--output", str(output_path)]
        if url:
            cmd.append(url)
        return cmd

    def record(self, url: str, output_path) -> str:
        """Open a recording browser at ``url`` and return the captured script once it is closed."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        cmd = self.build_command(url, output_path)

        logger.info("[Codegen] Starting Playwright codegen for %s", url or "<blank page>")
        logger.info("[Codegen] Recording to: %s (close the browser when done)", output_path)
        try:
            result = subprocess.run(cmd, timeout=self.timeout)
        except subprocess.TimeoutExpired as exc:
            raise RecorderError(f"codegen timed out after {self.timeout}s") from exc
        except FileNotFoundError as exc:
            raise RecorderError(f"codegen executable not found: {cmd[0]}") from exc

        if result.returncode != 0:
            raise RecorderError(f"codegen exited with status {result.returncode}")
        if not output_path.exists():
            raise RecorderError(f"codegen produced no output at {output_path}")

        code = output_path.read_text(encoding="utf-8")
        logger.info("[Codegen] Captured %d lines", len(code.splitlines()))
        return code


def inject_navigation_wait(code: str, url: str) -> str:
    """Add a network-idle wait and URL assertion after the first ``page.goto``."""

    def _inject(match: "re.Match[str]") -> str:
        indent = match.group(1)
        return (
            f"{indent}{match.group(2)}\n"
            f"{indent}await page.waitForLoadState('networkidle');\n"
            f"{indent}await expect(page).toHaveURL('{url}');"
        )

    return _GOTO.sub(_inject, code, count=1)


def _matching_brace(code: str, open_index: int) -> int:
    depth = 0
    for i in range(open_index, len(code)):
        ch = code[i]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return len(code)


def extract_script_body(code: str) -> str:
    """Return the statements inside the first ``test(...)`` callback, without imports."""
    without_imports = _IMPORT_LINE.sub("", code)
    match = _TEST_OPEN.search(without_imports)
    if not match:
        return without_imports.strip()
    start = match.end() - 1
    end = _matching_brace(without_imports, start)
    body = without_imports[start + 1:end]
    return textwrap.dedent(body.strip("\n")).strip()
