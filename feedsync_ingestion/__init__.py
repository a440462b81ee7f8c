"""
feedsync_ingestion -- fetching and mapping external feed rows.

Adapters (``feedsync_ingestion.adapters``) turn a configured source into
header-normalized ``SourceRows``; the mapper (``feedsync_ingestion.mapping``)
turns one row into a typed ``MappedRow`` or None.  Nothing here touches the
database.
"""
