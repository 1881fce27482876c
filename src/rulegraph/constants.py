"""Configuration constants for rulegraph.

Named constants for document versions, file discovery and result naming.
"""

# -----------------------------------------------------------------------------
# Document Versions
# -----------------------------------------------------------------------------

# apiVersion written when resources are serialized
API_VERSION = "rulegraph/v1"

# apiVersion values accepted on Rule and Baseline resources
SUPPORTED_API_VERSIONS: frozenset[str] = frozenset({API_VERSION})


# -----------------------------------------------------------------------------
# File Discovery
# -----------------------------------------------------------------------------

# Extensions read as YAML documents
YAML_EXTENSIONS: frozenset[str] = frozenset({".yaml", ".yml"})

# Extensions read as JSON documents
JSON_EXTENSIONS: frozenset[str] = frozenset({".json"})

# Extensions read as JSON with // and /* */ comments and trailing commas
JSONC_EXTENSIONS: frozenset[str] = frozenset({".jsonc"})

# All extensions picked up when a directory is expanded
DOCUMENT_EXTENSIONS: frozenset[str] = YAML_EXTENSIONS | JSON_EXTENSIONS | JSONC_EXTENSIONS


# -----------------------------------------------------------------------------
# Target Binding
# -----------------------------------------------------------------------------

# Fields tried, in order, to name a target object in results
DEFAULT_TARGET_NAME_FIELDS: tuple[str, ...] = ("name", "id")
