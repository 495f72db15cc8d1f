import subprocess

# Overwritten during the build/release process
__version__ = "test"


def get_version() -> str:
    """
    Returns the current version of the application.

    The release build pins ``__version__``; development checkouts fall back to
    the short git commit hash, and finally to "test".
    """
    if __version__ != "test":
        return __version__

    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout.strip() or __version__
    except (subprocess.CalledProcessError, FileNotFoundError):
        pass

    return __version__
