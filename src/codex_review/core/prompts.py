from __future__ import annotations

import json
from typing import Any

_DIFF_ANALYSIS_PROMPT = """You are an expert code reviewer analyzing a git diff. Review the following changes and provide a comprehensive analysis:

```diff
{diff}
```

Please analyze:
1. Potential bugs or logic errors in the changes
2. Security vulnerabilities introduced
3. Performance implications
4. Code style and best practices
5. Test coverage (if tests are included)
6. Breaking changes or API changes

Provide:
- Overall assessment
- Whether the changes should be merged
- Specific issues found with severity levels (blocker, critical, major, minor, info)
- For each issue: the file, the affected line range in the new file (e.g. "45-52"), what is wrong, why it is a problem, and a concrete fix
- Positive notes about good practices
- Test coverage assessment

Return results in the specified JSON schema format."""

_PR_COMMENTS_PROMPT = """You are an automated code review system. Review the PR diff and generate inline review comments for clear issues that need to be fixed.

```diff
{diff}
```

FOCUS ON THESE CRITICAL ISSUES:
- Dead/unreachable code (if (false), while (false), code after return/throw/break)
- Broken control flow (missing break in switch, fallthrough bugs)
- Async/await mistakes (missing await, unhandled promise rejections)
- Incorrect operator usage (== vs ===, && vs ||, = in conditions)
- Off-by-one errors in loops or array indexing
- Regex catastrophic backtracking vulnerabilities
- Missing base cases in recursive functions
- Null/undefined dereferences
- Resource leaks (unclosed files or connections)
- SQL/XSS injection vulnerabilities
- Concurrency/race conditions
- Missing error handling for critical operations

COMMENT FORMAT:
- Clearly describe the issue
- Explain why it's a problem
- Provide a concrete fix, suggesting the exact code change when possible
- Be specific, technical, no emojis

SKIP:
- Code style, formatting, or naming conventions
- Minor performance optimizations
- Architectural decisions or design patterns
- Test coverage (unless tests are clearly broken)

OUTPUT:
- Empty array if no issues found
- Otherwise array of comment objects with path, line, body
- Prioritize the most critical issues

Return results in the specified JSON schema format."""

_CODE_REVIEW_PROMPT = """You are a senior code reviewer. Please review the code in the following paths: {paths}

Focus areas: {focus}

Provide a comprehensive code review including:
1. Security vulnerabilities
2. Performance issues
3. Potential bugs or logic errors
4. Code style and best practices
5. Maintainability concerns

For each issue found, provide:
- File path and line number
- Severity level
- Clear description
- Specific suggestion for improvement

Return the results in the specified JSON schema format."""


def with_schema(prompt: str, json_schema: dict[str, Any]) -> str:
    return (
        f"{prompt}\n\nIMPORTANT: Return your response as valid JSON matching this schema:\n"
        f"{json.dumps(json_schema, indent=2)}"
    )


def diff_analysis_prompt(diff: str) -> str:
    return _DIFF_ANALYSIS_PROMPT.format(diff=diff)


def pr_comments_prompt(diff: str) -> str:
    return _PR_COMMENTS_PROMPT.format(diff=diff)


def code_review_prompt(paths: list[str], focus: list[str]) -> str:
    return _CODE_REVIEW_PROMPT.format(paths=", ".join(paths), focus=", ".join(focus))


__all__ = [
    "code_review_prompt",
    "diff_analysis_prompt",
    "pr_comments_prompt",
    "with_schema",
]
