#!/usr/bin/env python3
"""
Dependency Verification Script for the JavaScript Deobfuscator

Checks that the Python libraries are importable and reports whether the
optional external commands (prettier, obfuscator-io-deobfuscator) are on
PATH. Missing external commands are reported but do not fail the check,
because the deobfuscator degrades without them.
"""

import shutil
import subprocess
import sys


# ANSI color codes for terminal output
class Colors:
    GREEN = '\033[92m'
    RED = '\033[91m'
    YELLOW = '\033[93m'
    BLUE = '\033[94m'
    RESET = '\033[0m'
    BOLD = '\033[1m'


def print_success(message):
    """Print success message in green."""
    print(f"{Colors.GREEN}✓ {message}{Colors.RESET}")


def print_error(message):
    """Print error message in red."""
    print(f"{Colors.RED}✗ {message}{Colors.RESET}")


def print_warning(message):
    """Print warning message in yellow."""
    print(f"{Colors.YELLOW}! {message}{Colors.RESET}")


def print_info(message):
    """Print info message in blue."""
    print(f"{Colors.BLUE}ℹ {message}{Colors.RESET}")


def print_header(message):
    """Print header message in bold."""
    print(f"\n{Colors.BOLD}{message}{Colors.RESET}")


def verify_jsbeautifier():
    """Verify jsbeautifier installation and functionality."""
    try:
        import jsbeautifier

        version = getattr(jsbeautifier, '__version__', 'unknown')
        print_success(f"jsbeautifier {version} installed successfully")

        test_code = "function f(){return 1;}"
        beautified = jsbeautifier.beautify(test_code, jsbeautifier.default_options())
        if "return 1;" not in beautified:
            print_error("  jsbeautifier produced unexpected output")
            return False
        print_info(f"  jsbeautifier successfully formatted test code: '{test_code}'")
        return True
    except ImportError as e:
        print_error(f"jsbeautifier import failed: {e}")
        return False


def verify_click():
    """Verify click installation."""
    try:
        import click

        version = getattr(click, '__version__', 'unknown')
        print_success(f"click {version} installed successfully")
        return True
    except ImportError as e:
        print_error(f"click import failed: {e}")
        return False


def verify_rich():
    """Verify rich installation."""
    try:
        from importlib.metadata import version

        from rich.console import Console  # noqa: F401

        print_success(f"rich {version('rich')} installed successfully")
        return True
    except ImportError as e:
        print_error(f"rich import failed: {e}")
        return False


def verify_command(command):
    """Report whether an optional external command is available."""
    executable = shutil.which(command)
    if executable is None:
        print_warning(f"{command} not found on PATH (optional, the deobfuscator falls back without it)")
        return False

    try:
        completed = subprocess.run(
            [executable, "--version"],
            capture_output=True,
            text=True,
            timeout=30,
            check=False,
        )
        version = completed.stdout.strip() or "unknown version"
    except (OSError, subprocess.TimeoutExpired) as e:
        print_warning(f"{command} found at {executable} but could not be run: {e}")
        return False

    print_success(f"{command} {version} available at {executable}")
    return True


def main():
    """Main verification function."""
    print_header("=" * 60)
    print_header("JavaScript Deobfuscator - Dependency Verification")
    print_header("=" * 60)

    print_info(f"Python version: {sys.version}")
    print_info(f"Python executable: {sys.executable}")

    print_header("\nVerifying Core Dependencies:")

    results = []
    results.append(("jsbeautifier", verify_jsbeautifier()))
    results.append(("click", verify_click()))
    results.append(("rich", verify_rich()))

    print_header("\nChecking Optional External Tools:")
    optional = []
    optional.append(("prettier", verify_command("prettier")))
    optional.append(("obfuscator-io-deobfuscator", verify_command("obfuscator-io-deobfuscator")))

    print_header("\nVerification Summary:")
    print_header("-" * 60)

    all_passed = all(result[1] for result in results)

    for name, passed in results:
        status = f"{Colors.GREEN}PASS{Colors.RESET}" if passed else f"{Colors.RED}FAIL{Colors.RESET}"
        print(f"  {name:28s} [{status}]")
    for name, found in optional:
        status = f"{Colors.GREEN}FOUND{Colors.RESET}" if found else f"{Colors.YELLOW}MISSING{Colors.RESET}"
        print(f"  {name:28s} [{status}]")

    print_header("-" * 60)

    if all_passed:
        print_success("\n✓ All required dependencies verified successfully!")
        return 0
    else:
        print_error("\n✗ Some dependencies failed verification.")
        print_info("\nTo install missing dependencies, run:")
        print_info("  pip install -e .")
        return 1


if __name__ == "__main__":
    sys.exit(main())
