"""
HealthPartner Backoffice — Document Validators
Brazilian tax-id check digits (CNPJ for companies, CPF for individuals) and
display formatting for ids and phone numbers.
"""
import re


def _digits(value) -> str:
    return re.sub(r"\D", "", str(value or ""))


def _check_digit(total: int) -> int:
    rest = total % 11
    return 0 if rest < 2 else 11 - rest


def _cnpj_weights(start: int, count: int):
    # 5,4,3,2,9,8,... cycling back to 9 after 2
    weight = start
    for _ in range(count):
        yield weight
        weight = 9 if weight == 2 else weight - 1


def validate_cnpj(cnpj: str) -> bool:
    d = _digits(cnpj)
    if len(d) != 14 or len(set(d)) == 1:
        return False
    nums = [int(c) for c in d]
    first = _check_digit(sum(n * w for n, w in zip(nums[:12], _cnpj_weights(5, 12))))
    second = _check_digit(sum(n * w for n, w in zip(nums[:13], _cnpj_weights(6, 13))))
    return nums[12] == first and nums[13] == second


def validate_cpf(cpf: str) -> bool:
    d = _digits(cpf)
    if len(d) != 11 or len(set(d)) == 1:
        return False
    nums = [int(c) for c in d]
    first = _check_digit(sum(n * (10 - i) for i, n in enumerate(nums[:9])))
    second = _check_digit(sum(n * (11 - i) for i, n in enumerate(nums[:10])))
    return nums[9] == first and nums[10] == second


def validate_tax_id(value: str) -> bool:
    """CPF or CNPJ, picked by digit count."""
    d = _digits(value)
    return validate_cpf(d) if len(d) == 11 else validate_cnpj(d)


def format_cnpj(cnpj: str) -> str:
    d = _digits(cnpj)
    if len(d) != 14:
        return d
    return f"{d[:2]}.{d[2:5]}.{d[5:8]}/{d[8:12]}-{d[12:]}"


def format_cpf(cpf: str) -> str:
    d = _digits(cpf)
    if len(d) != 11:
        return d
    return f"{d[:3]}.{d[3:6]}.{d[6:9]}-{d[9:]}"


def format_phone(phone: str) -> str:
    """(DD) NNNNN-NNNN for mobiles, (DD) NNNN-NNNN for landlines, else unchanged."""
    d = _digits(phone)
    if len(d) == 11:
        return f"({d[:2]}) {d[2:7]}-{d[7:]}"
    if len(d) == 10:
        return f"({d[:2]}) {d[2:6]}-{d[6:]}"
    return phone
