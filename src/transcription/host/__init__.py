from transcription.host.base import DocumentHost
from transcription.host.filesystem import FileSystemVault

__all__ = ["DocumentHost", "FileSystemVault"]
