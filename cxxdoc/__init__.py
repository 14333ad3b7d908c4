"""
cxxdoc: C++ documentation comments for MkDocs sites.

Parses the doc comments attached to C++ declarations into typed markdown
sections (brief, details, effects, returns ...) and links references
between documented entities across every generated document.
"""

__version__ = "0.1.0"
