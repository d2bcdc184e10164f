"""Authentication and authorization.

Learn: Browsers log in with username/password and get back an opaque
session cookie. Every protected page and API route passes through the
auth gate, which resolves that cookie against the in-memory SessionStore
and either lets the request through or redirects to the login page.
"""
