from __future__ import annotations

import os
import platform

VERSION = os.getenv("CDNS_VERSION", "dev")
COMMIT = os.getenv("CDNS_COMMIT", "unknown")
BUILD_DATE = os.getenv("CDNS_BUILD_DATE", "unknown")


def version_banner() -> str:
    commit = COMMIT[:8] if len(COMMIT) > 8 else COMMIT
    py = f"Python {platform.python_version()}"
    plat = f"{platform.system().lower()}/{platform.machine().lower()}"
    return f"cdns {VERSION} ({commit}) built with {py} on {plat} at {BUILD_DATE}"
