"""
sftpflow - SFTP batch transfers and directory mirroring on top of rclone.

Packages:
    jobs          - Task model, lifecycle rules and the JSON status store
    execution     - rclone engine adapter and the batch orchestrator
    watchfolders  - Watch daemon (debounce, stability, in-flight dedup)
    reporting     - Download summaries
    monitoring    - Read-only status API
    observability - Logging setup
    cli           - Command-line entry point
"""

__version__ = "1.0.0"
