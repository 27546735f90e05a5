"""
Controllers
===========
Glue between the model and Qt: background work that must not block the GUI.

Note: Only this layer and `app` may import PySide6.
"""
