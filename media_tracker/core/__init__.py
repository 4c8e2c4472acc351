"""
Core application services.

`SettingsService` resolves the effective settings from their three sources,
and `MediaLibrary` persists media records through whichever storage backend
is connected.
"""
