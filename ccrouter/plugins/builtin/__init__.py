"""Plugins shipped with the router.

Enable one by listing its module name under ``plugins`` in the config, e.g.
``notebook_tools_filter`` or ``"gemini,gemini"``.
"""
