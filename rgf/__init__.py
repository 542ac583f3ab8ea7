"""
rgf - Add all forks of a GitHub repository as remotes of a local repository.

A CLI tool that:
1. Locates the local repository (or clones it when asked)
2. Lists the forks of an upstream repository via the GitHub API
3. Adds every fork that is not configured yet as a git remote

Usage:
    rgf owner/repo --list         # List forks
    rgf owner/repo --add          # Add missing forks as remotes
    rgf owner/repo --add -d       # Show what would be added
    rgf --rate-limit              # Show GitHub API rate limit status
"""

__version__ = "0.1.0"
__author__ = "rgf"
