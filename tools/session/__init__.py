"""
tools/session — Tools over session files and the mix template.

load_sessions.py: parse sessions and plan their timeline offsets.
match_tracks.py:  auto-match session tracks onto template tracks.
commit_merge.py:  consolidate the matches into the template and write it.
"""
