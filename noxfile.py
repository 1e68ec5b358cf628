"""Noxfile for the BAPS AI frontend CDK project.

Provides automated sessions for:
- Linting and formatting
- Testing with coverage
- Type checking
- Security scanning
- CDK synthesis
"""

import nox

# Python versions to test against
PYTHON_VERSIONS = ["3.11"]

# Common locations
PACKAGE_DIR = "src/frontend_site"
INFRA_DIR = "infra"
SCRIPTS_DIR = "scripts"
TESTS_DIR = "tests"


@nox.session(python=PYTHON_VERSIONS)
def tests(session):
    """Run the test suite with coverage."""
    session.install(".[test]")

    session.run(
        "pytest",
        "--cov=frontend_site",
        "--cov=infra",
        "--cov-report=term-missing",
        "--cov-fail-under=80",
        *session.posargs,
    )


@nox.session(python=PYTHON_VERSIONS)
def lint(session):
    """Run linting with ruff."""
    session.install("ruff")
    session.run("ruff", "check", ".")


@nox.session(python=PYTHON_VERSIONS)
def format(session):
    """Format code with black and ruff."""
    session.install("black", "ruff")
    session.run("black", ".")
    session.run("ruff", "check", "--fix", ".")


@nox.session(python=PYTHON_VERSIONS)
def typecheck(session):
    """Run type checking with mypy."""
    session.install(".")
    session.install("mypy", "types-PyYAML", "boto3-stubs[s3,cloudfront,cloudformation]")
    session.run("mypy", PACKAGE_DIR, INFRA_DIR)


@nox.session(python=PYTHON_VERSIONS)
def security(session):
    """Run security checks."""
    session.install("bandit[toml]")
    session.run("bandit", "-r", PACKAGE_DIR, INFRA_DIR, SCRIPTS_DIR)


@nox.session(python=PYTHON_VERSIONS)
def synth(session):
    """Synthesize the CDK app into cdk.out (needs the CDK CLI on PATH)."""
    session.install(".")
    session.run("cdk", "synth", "--quiet", external=True)


@nox.session
def clean(session):
    """Clean up build artifacts and cache files."""
    import shutil
    from pathlib import Path

    # Directories to clean
    clean_dirs = [
        ".pytest_cache",
        ".coverage",
        "htmlcov",
        "dist",
        "build",
        "cdk.out",
        "*.egg-info",
        ".mypy_cache",
        ".ruff_cache",
        "__pycache__",
    ]

    for pattern in clean_dirs:
        for path in Path(".").glob(f"**/{pattern}"):
            if path.is_dir():
                session.log(f"Removing directory: {path}")
                shutil.rmtree(path)
            elif path.is_file():
                session.log(f"Removing file: {path}")
                path.unlink()


# Default session when running `nox` without arguments
nox.options.sessions = ["tests", "lint", "typecheck"]
