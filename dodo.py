"""
Doit file to wrap development workflow commands.
"""

import shutil
from pathlib import Path

from doit.task import Task
from doit.tools import create_folder

PACKAGE = "mutagen_compose"

# badges output
BADGES_PATH = Path("badges")
PYTEST_BADGE = BADGES_PATH / "tests.svg"
COV_BADGE = BADGES_PATH / "cov.svg"

# artifact output
OUT_PATH = Path("__out__")

# test and coverage results
TESTS_PATH = OUT_PATH / "test"
JUNIT_PATH = TESTS_PATH / "junit.xml"
COV_PATH = TESTS_PATH / "cov"
COV_HTML_PATH = COV_PATH / "html"
COV_XML_PATH = COV_PATH / "coverage.xml"

# static analysis results
MYPY_PATH = OUT_PATH / "analysis" / "mypy"


def cleanup_dir(output_dir: Path):
    if output_dir.exists():
        shutil.rmtree(output_dir)


def task_pytest() -> Task:
    """
    Run pytest and generate coverage reports.
    """

    args = [
        "pytest",
        f"--cov={PACKAGE}",
        f"--cov-report=html:{COV_HTML_PATH}",
        f"--cov-report=xml:{COV_XML_PATH}",
        f"--junitxml={JUNIT_PATH}",
    ]

    return Task(
        "test",
        actions=[
            (create_folder, [COV_PATH]),
            " ".join(args),
        ],
        targets=[
            f"{COV_HTML_PATH}/index.html",
            COV_XML_PATH,
            JUNIT_PATH,
        ],
        file_dep=[],
        clean=[(cleanup_dir, [TESTS_PATH])],
    )


def task_badges() -> Task:
    """
    Generate badges from test and coverage results.
    """

    def genbadge(kind: str, src: Path, dest: Path) -> str:
        return f"genbadge {kind} -i {src} -o {dest}"

    return Task(
        "badges",
        actions=[
            (create_folder, [BADGES_PATH]),
            genbadge("tests", JUNIT_PATH, PYTEST_BADGE),
            genbadge("coverage", COV_XML_PATH, COV_BADGE),
        ],
        targets=[PYTEST_BADGE, COV_BADGE],
        file_dep=[JUNIT_PATH, COV_XML_PATH],
    )


def task_format() -> Task:
    """
    Run formatters.
    """

    return Task(
        "format",
        actions=[
            "autoflake --remove-all-unused-imports -i -r .",
            "isort .",
            "black .",
            "toml-sort -i pyproject.toml",
        ],
        targets=[],
        file_dep=[],
    )


def task_analysis() -> Task:
    """
    Run static analysis.
    """

    return Task(
        "analysis",
        actions=[
            f"mypy --html-report {MYPY_PATH} {PACKAGE}",
        ],
        targets=[],
        file_dep=[],
    )
