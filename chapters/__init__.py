"""chapters/ -- Chapter content records and their persistence.

Layer rule: chapters/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/, auth/, or editor/.
"""
