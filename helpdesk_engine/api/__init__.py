"""
Helpdesk Engine HTTP API
"""
