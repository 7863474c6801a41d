"""ncbackup - Nextcloud Docker backup orchestration tool."""

__version__ = "0.1.0"
__author__ = "ncbackup maintainers"
