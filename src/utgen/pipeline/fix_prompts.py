"""Prompts that ask the model to write or repair tests for one method.

The model only edits files in these turns; verification runs automatically
afterwards, so every prompt tells it not to call the build tools itself.
"""

from __future__ import annotations

from utgen.models.verification import VerificationStep

MAX_ERROR_CHARS = 2000

_WRITE_ONLY = """\
Only write code. Syntax check, compilation, test execution and coverage \
measurement run automatically after you reply; do not call check_syntax, \
compile_project or execute_test yourself."""

_GENERATE_TEMPLATE = """\
## Generate tests

Target class: {target_file}
Method: `{method_name}`
Test file: {test_file}
Current line coverage of the method: {coverage:.1f}%

Write unit tests for `{method_name}`:

1. Read the current test file with read_file("{test_file}") if it exists.
2. Analyze the method and identify the paths worth testing.
3. Cover the normal path, boundary conditions and exception handling.
4. Add the tests to the test file (write_file or search_replace). Keep the \
existing tests intact.

{write_only}

When done, reply "tests written"."""

_MORE_TESTS_TEMPLATE = """\
## Coverage below target

Method: `{method_name}`
Current line coverage: {coverage:.1f}%
Target: {threshold:.0f}% (missing {gap:.1f} points)

Add more tests:

1. Read the test file with read_file("{test_file}") to see the existing tests.
2. Read the source with read_file("{target_file}") and find the uncovered paths.
3. Target boundary values (null, empty, min/max), exception paths and every \
branch (if/else, switch).
4. Append the new tests to the test file.

{write_only}

When done, reply "tests written"."""

_SYNTAX_FIX_TEMPLATE = """\
## Fix syntax errors

File: {test_file}

```
{errors}
```

1. Read the test file with read_file("{test_file}").
2. Locate each error (missing semicolons, unbalanced braces, bad imports).
3. Fix it with search_replace, or rewrite the file with write_file.

The file is re-checked automatically. When done, reply "fixed"."""

_LSP_FIX_TEMPLATE = """\
## Fix diagnostic errors

File: {test_file}

```
{errors}
```

1. Read the test file with read_file("{test_file}").
2. Map each diagnostic to a fix:
   - "cannot be resolved to a type": add the missing import
   - "duplicate annotation": remove the duplicate
   - "method undefined": check the method name and signature
   - "type mismatch": fix the conversion
3. Fix the affected lines with search_replace.

The file is re-checked automatically. When done, reply "fixed"."""

_COMPILE_FIX_TEMPLATE = """\
## Fix compilation errors

File: {test_file}

```
{errors}
```

1. Read the test file with read_file("{test_file}").
2. Read the source class if you need its exact API.
3. Typical causes: missing imports, type mismatches, wrong method signatures, \
missing test dependencies.
4. Fix the code.

The project is recompiled automatically. When done, reply "fixed"."""

_TEST_FIX_TEMPLATE = """\
## Fix failing tests

Test class: {test_class}
File: {test_file}

```
{errors}
```

1. Read the test file with read_file("{test_file}").
2. Find the cause:
   - assertion failure: compare expected and actual values with the source logic
   - mock configuration: check the when()/thenReturn() stubs
   - NullPointerException: check that mocks are injected
   - unexpected exception: use assertThrows where the exception is intended
3. Fix the test code. Do not change production code.

The tests are re-run automatically. When done, reply "fixed"."""


def truncate_error(error: str | None) -> str:
    if not error:
        return "(no details)"
    if len(error) > MAX_ERROR_CHARS:
        return error[:MAX_ERROR_CHARS] + "\n... (truncated)"
    return error


def build_generate_prompt(
    target_file: str, method_name: str, test_file: str, coverage: float
) -> str:
    return _GENERATE_TEMPLATE.format(
        target_file=target_file,
        method_name=method_name,
        test_file=test_file,
        coverage=coverage,
        write_only=_WRITE_ONLY,
    )


def build_more_tests_prompt(
    target_file: str, method_name: str, test_file: str, coverage: float, threshold: float
) -> str:
    return _MORE_TESTS_TEMPLATE.format(
        target_file=target_file,
        method_name=method_name,
        test_file=test_file,
        coverage=coverage,
        threshold=threshold,
        gap=max(threshold - coverage, 0.0),
        write_only=_WRITE_ONLY,
    )


def build_fix_prompt(
    step: VerificationStep, test_file: str, test_class: str, errors: str
) -> str | None:
    """Repair prompt for a failed verification step.

    Returns None for steps that are not repaired in place (coverage).
    """
    errors = truncate_error(errors)
    if step is VerificationStep.SYNTAX_CHECK:
        return _SYNTAX_FIX_TEMPLATE.format(test_file=test_file, errors=errors)
    if step is VerificationStep.LSP_CHECK:
        return _LSP_FIX_TEMPLATE.format(test_file=test_file, errors=errors)
    if step is VerificationStep.COMPILE:
        return _COMPILE_FIX_TEMPLATE.format(test_file=test_file, errors=errors)
    if step is VerificationStep.TEST:
        return _TEST_FIX_TEMPLATE.format(test_file=test_file, test_class=test_class, errors=errors)
    return None
