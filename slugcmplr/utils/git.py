"""Source version resolution from a git working tree."""

import logging
from pathlib import Path

from git import InvalidGitRepositoryError
from git import NoSuchPathError
from git import Repo

from ..errors import SlugcmplrError

logger = logging.getLogger(__name__)


def resolve_commit(source_dir: Path | str) -> str:
    """Resolve the HEAD commit of the repository containing source_dir.

    Args:
        source_dir: Directory inside a git working tree

    Returns:
        Hex SHA of HEAD

    Raises:
        SlugcmplrError: If source_dir is not in a repository or HEAD is unborn
    """
    try:
        repo = Repo(source_dir, search_parent_directories=True)
        commit = repo.head.commit.hexsha
    except (InvalidGitRepositoryError, NoSuchPathError) as e:
        raise SlugcmplrError(f"Error opening git directory {source_dir}: {e}") from e
    except ValueError as e:
        raise SlugcmplrError(f"Error resolving HEAD revision in {source_dir}: {e}") from e

    logger.debug(f"Resolved {source_dir} HEAD to {commit}")
    return commit
