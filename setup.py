"""
setup.py for the face-dedup monorepo.

Needed because the source tree does not follow the standard layout:
  - face_dedup lives under backend/src/face_dedup/
  - face_dedup_gateway lives under gateway/

pyproject.toml handles metadata; this file maps package dirs.
"""

from setuptools import setup

setup(
    package_dir={
        "face_dedup": "backend/src/face_dedup",
        "face_dedup_gateway": "gateway",
    },
    packages=[
        "face_dedup",
        "face_dedup.cli",
        "face_dedup.search",
        "face_dedup.storage",
        "face_dedup_gateway",
    ],
)
