"""acmeshell tests"""
