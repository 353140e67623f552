"""Bulbiz API - job tracking, devis, factures and RDV for independent plumbers"""
