"""CLI"""
