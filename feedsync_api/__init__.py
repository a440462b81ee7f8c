"""
feedsync_api -- FastAPI surface for triggering, confirming, previewing
and inspecting feed runs.
"""
