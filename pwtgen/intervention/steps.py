import re
from typing import List

from ..core.models import Step

STEP_MARKER = re.compile(r"(?=await test\.step)")
_STEP_TITLE = re.compile(r"await test\.step\(\s*(['\"`])(.*?)\1")
_CLOSER = re.compile(r"^\s*\}\)?;?\s*$")

SKIP_MARKER = "// Step skipped by developer"


def _describe(chunk: str, index: int) -> str:
    match = _STEP_TITLE.search(chunk)
    if match:
        return match.group(2)
    first = chunk.strip().splitlines()[0] if chunk.strip() else ""
    return first[:80] or f"Step {index + 1}"


def _brace_balance(text: str) -> int:
    """Net ``{`` minus ``}`` outside strings, template text and comments."""
    depth = 0
    templates: List[int] = []  # brace depth inside each open ${...}
    quote = None
    i = 0
    while i < len(text):
        ch = text[i]
        if quote in ("'", '"'):
            if ch == "\\":
                i += 1
            elif ch == quote or ch == "\n":
                quote = None
        elif quote == "`":
            if ch == "\\":
                i += 1
            elif ch == "`":
                quote = None
            elif text.startswith("${", i):
                templates.append(0)
                quote = None
                i += 1
        elif text.startswith("//", i):
            end = text.find("\n", i)
            i = len(text) if end == -1 else end
            continue
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            i = len(text) if end == -1 else end + 2
            continue
        elif ch in "'\"`":
            quote = ch
        elif ch == "{":
            if templates:
                templates[-1] += 1
            else:
                depth += 1
        elif ch == "}":
            if templates and templates[-1] == 0:
                templates.pop()
                quote = "`"
            elif templates:
                templates[-1] -= 1
            else:
                depth -= 1
        i += 1
    return depth


def _trim_unbalanced_closers(chunk: str) -> str:
    lines = chunk.rstrip().splitlines()
    while lines and _CLOSER.match(lines[-1]):
        if _brace_balance("\n".join(lines)) >= 0:
            break
        lines.pop()
    return "\n".join(lines)


def split_steps(code: str) -> List[Step]:
    """Split generated code before every ``await test.step`` marker.

    Text ahead of the first marker (imports, describe/test openers, hooks) is
    dropped; the merge rebuilds that skeleton. Code without any marker comes
    back as a single step.
    """
    chunks = STEP_MARKER.split(code or "")
    step_chunks = [c for c in chunks if c.lstrip().startswith("await test.step")]
    if not step_chunks:
        body = (code or "").strip()
        return [Step(index=0, description=_describe(body, 0), code=body)] if body else []

    step_chunks[-1] = _trim_unbalanced_closers(step_chunks[-1])
    steps = []
    for i, chunk in enumerate(step_chunks):
        text = chunk.strip()
        steps.append(Step(index=i, description=_describe(text, i), code=text))
    return steps


def skip_step(step: Step) -> Step:
    step.code = SKIP_MARKER
    step.skipped = True
    step.developer_modified = False
    return step
