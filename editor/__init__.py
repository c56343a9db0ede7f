"""editor/ -- Chapter editor state, prompt seam and portal API client.

Layer rule: editor/ talks to the portal over HTTP only. It imports
chapters.models for the shared record shape and never imports api/ or auth/.
"""
