"""
Chat module.

Streams chat turns to the frontend as UI message events: moderation first,
then either the uploaded-file flow or a general chat with web and file search.
"""
