"""Nox sessions for clio-radio development tasks."""

from __future__ import annotations

import sys

import nox

PACKAGE = "clio_radio"

nox.options.error_on_missing_interpreters = False
nox.options.sessions = ["lint", "typecheck", "tests"]


@nox.session
def lint(session: nox.Session) -> None:
    """Run ruff linting and formatting checks."""
    session.install("ruff")
    session.run("ruff", "check", ".")
    session.run("ruff", "format", "--check", ".")


@nox.session(name="lint-fix")
def lint_fix(session: nox.Session) -> None:
    """Apply ruff fixes and formatting."""
    session.install("ruff")
    session.run("ruff", "check", "--fix", ".")
    session.run("ruff", "format", ".")


@nox.session
def tests(session: nox.Session) -> None:
    """Run pytest without tests that need a real mpv binary."""
    session.install("-e", ".[dev]")
    session.run("pytest", "-q", *session.posargs, env={"CLIO_CI": "1"})


@nox.session
def typecheck(session: nox.Session) -> None:
    """Run mypy with the settings from pyproject.toml."""
    session.install("-e", ".[dev]")
    session.run("mypy", f"src/{PACKAGE}")


@nox.session
def build(session: nox.Session) -> None:
    """Build sdist and wheel artifacts."""
    session.install("build")
    session.run("python", "-m", "build")


@nox.session
def coverage(session: nox.Session) -> None:
    """Run coverage reporting."""
    session.install("-e", ".[dev]")
    session.install("coverage")
    session.run("coverage", "run", f"--source={PACKAGE}", "-m", "pytest")
    session.run("coverage", "report", "--fail-under=80", "-m")


# --------------------------------------------------
#                  LOCAL DEV TESTING
# --------------------------------------------------


@nox.session(name="tests-dev", venv_backend="none")
def tests_dev(session: nox.Session) -> None:
    """Fast local pytest using the active venv, mpv tests included."""
    session.run("python", "-m", "pytest", "-q", *session.posargs, external=True)


@nox.session(name="local-dev", venv_backend="none")
def local_dev(session: nox.Session) -> None:
    """Lint, typecheck and test against the active venv."""
    session.run("python", "-m", "ruff", "check", ".", external=True)
    session.run("python", "-m", "mypy", f"src/{PACKAGE}", external=True)
    session.run(sys.executable, "-m", "pytest", "-q", external=True)
