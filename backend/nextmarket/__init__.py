"""
Next Market backend.

Plugin marketplace service: accepts NPM-style package archives, stores them in
object storage, records plugins and versions in a relational database and
serves a paginated search API plus JSON-schema driven plugin configuration.
"""

__version__ = "0.3.0"
