"""Generate VS Code multi-root workspaces with LLDB launch entries for Cargo projects."""

__version__ = "0.1.0"
