"""eMirimo backend: learning completions, certificates and admin dashboard API.

The HTTP app lives in ``emirimo.api``; the Socket.IO broadcast layer lives in
the sibling ``realtime`` package.
"""
