"""
Ledgerline Directory Module
============================
Organizations inside a tenant, arranged in a parent/child tree.
"""
