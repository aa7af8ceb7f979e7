"""
FastAPI server package
"""
