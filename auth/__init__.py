"""auth/ -- Login, session and user storage package for the chapter portal.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/, chapters/, or editor/.
api/ imports from auth/, not the other way around.
"""
