"""Routing — route table, param callbacks and the Router facade.

Routes and param callbacks are registered during setup; the router is
sealed before (or on) its first dispatch and only read afterwards.
"""
