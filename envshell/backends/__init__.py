"""
Host integrations that are not plain text files: the Windows registry
(cmd.exe AutoRun, long path support) and the activated subshell.
"""

__all__ = []
