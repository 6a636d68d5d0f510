"""Microservices package"""
