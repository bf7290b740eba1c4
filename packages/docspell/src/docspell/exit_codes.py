from __future__ import annotations

OK = 0
ERR_CHECK = 1
ERR_USAGE = 2
ERR_CONFIG = 10
ERR_PREREQ = 11
ERR_VALIDATION = 13
ERR_ARTIFACT = 14
ERR_INTERNAL = 99
