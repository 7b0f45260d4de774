"""Launch Checklist Engine - Services"""
