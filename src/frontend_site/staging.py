"""Staging of frontend build output into a normalized directory.

Frontend toolchains disagree on where static exports land (``.next/out`` for
older Next.js exports, ``out`` for ``next export``, ``dist`` for Vite and
friends). The build step probes an ordered list of candidate directories and
copies the first one that exists and contains files into a single output
directory that the publish step consumes.

The same rules are expressed twice: ``stage_build_output`` runs them locally
(used by ``scripts/publish_frontend.py`` and the tests) and ``staging_commands``
renders them as the shell commands executed by CodeBuild.
"""

import logging
import shlex
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


class BuildOutputNotFound(RuntimeError):
    """Raised when no candidate output directory exists and output is required."""


@dataclass(frozen=True)
class StagingResult:
    """Outcome of probing the build output conventions."""
    output_dir: Path
    source: Optional[Path] = None
    files: Tuple[str, ...] = ()

    @property
    def found(self) -> bool:
        return self.source is not None


def _has_files(path: Path) -> bool:
    return path.is_dir() and any(p.is_file() for p in path.rglob("*"))


def list_files(root: Path) -> List[str]:
    """Return the files below ``root`` as sorted POSIX-style relative paths."""
    return sorted(p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file())


def find_build_output(workdir: Path, candidates: Sequence[str]) -> Optional[Path]:
    """Return the first candidate directory under ``workdir`` that holds files."""
    for candidate in candidates:
        path = workdir / candidate
        if _has_files(path):
            logger.debug(f"Found build output in {path}")
            return path
        logger.debug(f"No build output in {path}")
    return None


def stage_build_output(
    workdir: Path,
    candidates: Sequence[str],
    output_dir: str = "build-output",
    require_output: bool = False,
) -> StagingResult:
    """Copy the first recognized build output into ``workdir/output_dir``.

    The output directory is emptied and recreated first, so it holds exactly
    the files of this build, or nothing when no output was found.

    Raises:
        BuildOutputNotFound: If nothing was found and ``require_output`` is set.
    """
    workdir = Path(workdir)
    out = workdir / output_dir
    if out.exists():
        shutil.rmtree(out)
    out.mkdir(parents=True)

    source = find_build_output(workdir, candidates)
    if source is None:
        message = f"No build output found in any of: {', '.join(candidates)}"
        if require_output:
            raise BuildOutputNotFound(message)
        logger.warning(f"{message}; publish will be skipped")
        return StagingResult(output_dir=out)

    shutil.copytree(source, out, dirs_exist_ok=True)
    files = tuple(list_files(source))
    logger.info(f"Staged {len(files)} files from {source} into {out}")
    return StagingResult(output_dir=out, source=source, files=files)


def staging_commands(
    candidates: Sequence[str],
    output_dir: str = "build-output",
    require_output: bool = False,
) -> List[str]:
    """Render the staging rules as CodeBuild shell commands."""
    if not candidates:
        raise ValueError("At least one candidate output directory is required")

    out = shlex.quote(output_dir)
    branches = []
    for index, candidate in enumerate(candidates):
        src = shlex.quote(candidate)
        keyword = "if" if index == 0 else "elif"
        branches.append(
            f'{keyword} [ -d {src} ] && [ -n "$(find {src} -type f -print -quit)" ]; then '
            f"cp -r {src}/. {out}/; echo \"Staged build output from {candidate}\";"
        )

    missing = f"No build output found in any of: {', '.join(candidates)}"
    if require_output:
        fallback = f'else echo "ERROR: {missing}"; exit 1; fi'
    else:
        fallback = f'else echo "WARNING: {missing}; publish will be skipped"; fi'

    return [
        'echo "Preparing artifacts..."',
        f"rm -rf {out}",
        f"mkdir -p {out}",
        " ".join(branches) + " " + fallback,
        'echo "Build artifacts prepared"',
    ]
