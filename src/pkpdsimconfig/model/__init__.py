"""
The MODEL layer contains pure data structures for the PK/PD analysis.
It has NO knowledge of the UI (Qt) or of the projection maps.
It deals with the analysis, its SimBiology model components, and I/O.
"""
