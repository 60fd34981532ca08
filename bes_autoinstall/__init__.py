"""BES autoinstall generator (profile-driven, reproducible).

Core design goals:
- One builder, many deployment profiles
- Architecture-aware package and partition choices
- Storage layouts validated before rendering
- Collision-free heredoc embedding of scripts and keys
- Byte-identical output for identical inputs
"""

__all__ = []
