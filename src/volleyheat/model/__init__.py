"""
The MODEL layer contains pure data structures and business logic.
It has NO knowledge of the GUI (Qt) or of any rendering backend.
It deals with Points, Court Geometry, History, Filters and I/O.
"""
