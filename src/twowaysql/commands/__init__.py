"""Shell commands exposing TwoWaySQL functionalities.

Render
======

``twowaysql-render`` renders a template file with the given parameters
and prints the generated SQL followed by the values bound to it::

    twowaysql-render -p age=30 -p 'names=["Mario", "Luigi"]' people.sql

Parameter values are parsed as JSON when possible, otherwise they are
taken as plain strings. Parameters can also be loaded from a JSON file
with ``--params-file``. ``--tree`` prints how the template was parsed
instead of rendering it, which helps when debugging indentation.
"""
