"""Currency -- ISO 4217 codes accepted on claims and as rate-table bases."""

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar

from reimburse_kernel.exceptions import InvalidCurrencyError


@dataclass(frozen=True)
class CurrencyInfo:
    """One ISO 4217 currency and its minor-unit precision."""

    code: str
    decimal_places: int
    name: str

    @property
    def quantize_exponent(self) -> Decimal:
        """Exponent passed to ``Decimal.quantize`` when rounding a converted amount."""
        return Decimal(1).scaleb(-self.decimal_places)


# Minor-unit digits -> {code: name}. XXX (no currency) and XTS (testing)
# are not accepted on claims.
_BY_PRECISION: dict[int, dict[str, str]] = {
    2: {
        "AED": "UAE Dirham", "AFN": "Afghan Afghani", "ALL": "Albanian Lek",
        "AMD": "Armenian Dram", "ANG": "Netherlands Antillean Guilder",
        "AOA": "Angolan Kwanza", "ARS": "Argentine Peso",
        "AUD": "Australian Dollar", "AWG": "Aruban Florin",
        "AZN": "Azerbaijan Manat", "BAM": "Bosnia and Herzegovina Convertible Mark",
        "BBD": "Barbadian Dollar", "BDT": "Bangladeshi Taka",
        "BGN": "Bulgarian Lev", "BMD": "Bermudian Dollar", "BND": "Brunei Dollar",
        "BOB": "Bolivian Boliviano", "BOV": "Bolivian Mvdol",
        "BRL": "Brazilian Real", "BSD": "Bahamian Dollar",
        "BTN": "Bhutanese Ngultrum", "BWP": "Botswana Pula",
        "BYN": "Belarusian Ruble", "BZD": "Belize Dollar", "CAD": "Canadian Dollar",
        "CDF": "Congolese Franc", "CHE": "WIR Euro", "CHF": "Swiss Franc",
        "CHW": "WIR Franc", "CNY": "Chinese Yuan", "COP": "Colombian Peso",
        "COU": "Colombian Unidad de Valor Real", "CRC": "Costa Rican Colon",
        "CUC": "Cuban Convertible Peso", "CUP": "Cuban Peso",
        "CVE": "Cape Verdean Escudo", "CZK": "Czech Koruna", "DKK": "Danish Krone",
        "DOP": "Dominican Peso", "DZD": "Algerian Dinar", "EGP": "Egyptian Pound",
        "ERN": "Eritrean Nakfa", "ETB": "Ethiopian Birr", "EUR": "Euro",
        "FJD": "Fijian Dollar", "FKP": "Falkland Islands Pound",
        "GBP": "Pound Sterling", "GEL": "Georgian Lari", "GHS": "Ghanaian Cedi",
        "GIP": "Gibraltar Pound", "GMD": "Gambian Dalasi",
        "GTQ": "Guatemalan Quetzal", "GYD": "Guyanese Dollar",
        "HKD": "Hong Kong Dollar", "HNL": "Honduran Lempira",
        "HRK": "Croatian Kuna", "HTG": "Haitian Gourde", "HUF": "Hungarian Forint",
        "IDR": "Indonesian Rupiah", "ILS": "Israeli New Shekel",
        "INR": "Indian Rupee", "IRR": "Iranian Rial", "JMD": "Jamaican Dollar",
        "KES": "Kenyan Shilling", "KGS": "Kyrgyzstani Som", "KHR": "Cambodian Riel",
        "KPW": "North Korean Won", "KYD": "Cayman Islands Dollar",
        "KZT": "Kazakhstani Tenge", "LAK": "Lao Kip", "LBP": "Lebanese Pound",
        "LKR": "Sri Lankan Rupee", "LRD": "Liberian Dollar", "LSL": "Lesotho Loti",
        "MAD": "Moroccan Dirham", "MDL": "Moldovan Leu", "MGA": "Malagasy Ariary",
        "MKD": "Macedonian Denar", "MMK": "Myanmar Kyat", "MNT": "Mongolian Tugrik",
        "MOP": "Macanese Pataca", "MRU": "Mauritanian Ouguiya",
        "MUR": "Mauritian Rupee", "MVR": "Maldivian Rufiyaa",
        "MWK": "Malawian Kwacha", "MXN": "Mexican Peso",
        "MXV": "Mexican Unidad de Inversion", "MYR": "Malaysian Ringgit",
        "MZN": "Mozambican Metical", "NAD": "Namibian Dollar",
        "NGN": "Nigerian Naira", "NIO": "Nicaraguan Cordoba",
        "NOK": "Norwegian Krone", "NPR": "Nepalese Rupee",
        "NZD": "New Zealand Dollar", "PAB": "Panamanian Balboa",
        "PEN": "Peruvian Sol", "PGK": "Papua New Guinean Kina",
        "PHP": "Philippine Peso", "PKR": "Pakistani Rupee", "PLN": "Polish Zloty",
        "QAR": "Qatari Riyal", "RON": "Romanian Leu", "RSD": "Serbian Dinar",
        "RUB": "Russian Ruble", "SAR": "Saudi Riyal",
        "SBD": "Solomon Islands Dollar", "SCR": "Seychellois Rupee",
        "SDG": "Sudanese Pound", "SEK": "Swedish Krona", "SGD": "Singapore Dollar",
        "SHP": "Saint Helena Pound", "SLE": "Sierra Leonean Leone",
        "SLL": "Sierra Leonean Leone (old)", "SOS": "Somali Shilling",
        "SRD": "Surinamese Dollar", "SSP": "South Sudanese Pound",
        "STN": "Sao Tome and Principe Dobra", "SVC": "Salvadoran Colon",
        "SYP": "Syrian Pound", "SZL": "Swazi Lilangeni", "THB": "Thai Baht",
        "TJS": "Tajikistani Somoni", "TMT": "Turkmenistan Manat",
        "TOP": "Tongan Paanga", "TRY": "Turkish Lira",
        "TTD": "Trinidad and Tobago Dollar", "TWD": "New Taiwan Dollar",
        "TZS": "Tanzanian Shilling", "UAH": "Ukrainian Hryvnia", "USD": "US Dollar",
        "USN": "US Dollar (Next day)", "UYU": "Uruguayan Peso",
        "UZS": "Uzbekistani Som", "VED": "Venezuelan Bolivar Digital",
        "VES": "Venezuelan Bolivar Soberano", "WST": "Samoan Tala",
        "XCD": "East Caribbean Dollar", "YER": "Yemeni Rial",
        "ZAR": "South African Rand", "ZMW": "Zambian Kwacha",
        "ZWL": "Zimbabwean Dollar",
    },
    0: {
        "BIF": "Burundian Franc", "CLP": "Chilean Peso", "DJF": "Djiboutian Franc",
        "GNF": "Guinean Franc", "ISK": "Icelandic Krona", "JPY": "Japanese Yen",
        "KMF": "Comorian Franc", "KRW": "South Korean Won",
        "PYG": "Paraguayan Guarani", "RWF": "Rwandan Franc",
        "UGX": "Ugandan Shilling", "UYI": "Uruguay Peso en Unidades Indexadas",
        "VND": "Vietnamese Dong", "VUV": "Vanuatu Vatu",
        "XAF": "Central African CFA Franc", "XAG": "Silver (troy ounce)",
        "XAU": "Gold (troy ounce)", "XBA": "European Composite Unit",
        "XBB": "European Monetary Unit", "XBC": "European Unit of Account 9",
        "XBD": "European Unit of Account 17", "XDR": "Special Drawing Rights",
        "XOF": "West African CFA Franc", "XPD": "Palladium (troy ounce)",
        "XPF": "CFP Franc", "XPT": "Platinum (troy ounce)", "XSU": "Sucre",
        "XUA": "ADB Unit of Account",
    },
    3: {
        "BHD": "Bahraini Dinar", "IQD": "Iraqi Dinar", "JOD": "Jordanian Dinar",
        "KWD": "Kuwaiti Dinar", "LYD": "Libyan Dinar", "OMR": "Omani Rial",
        "TND": "Tunisian Dinar",
    },
    4: {
        "CLF": "Chilean Unidad de Fomento", "UYW": "Unidad Previsional",
    },
}


def _normalize(code: object) -> str | None:
    if not code or not isinstance(code, str):
        return None
    return code.strip().upper()


class CurrencyRegistry:
    """Lookup and validation over the supported ISO 4217 codes."""

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        code: CurrencyInfo(code, places, name)
        for places, names in _BY_PRECISION.items()
        for code, name in names.items()
    }

    @classmethod
    def is_valid(cls, code: str) -> bool:
        return _normalize(code) in cls._CURRENCIES

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        normalized = _normalize(code)
        return cls._CURRENCIES.get(normalized) if normalized else None

    @classmethod
    def validate(cls, code: str) -> str:
        """Return the upper-cased code.

        Raises:
            InvalidCurrencyError: for anything that is not a supported code,
                including non-strings and codes of the wrong length.
        """
        normalized = _normalize(code)
        if normalized is None:
            raise InvalidCurrencyError(repr(code))
        if normalized not in cls._CURRENCIES:
            raise InvalidCurrencyError(code)
        return normalized

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        return frozenset(cls._CURRENCIES)
