from .artifacts import ArtifactKind, ArtifactState, FileLifecycleManager, OutputArtifact

__all__ = ["ArtifactKind", "ArtifactState", "FileLifecycleManager", "OutputArtifact"]
