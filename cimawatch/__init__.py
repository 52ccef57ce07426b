# cimawatch/__init__.py
