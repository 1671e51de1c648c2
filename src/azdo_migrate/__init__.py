"""Azure DevOps Migration Tool

Mirrors Git repositories, with every branch and tag, from one Azure DevOps
organization/project to another.
"""

__version__ = '0.1.0'

from .cli.main import main

__all__ = ['main']
