"""The small user programs the shell starts, as text or number sequences."""

from __future__ import annotations

from typing import Iterator

_U32 = 0xFFFFFFFF

PROMPT = "~$ "
QUESTION = "Que comando desea correr?\n"

_BANNER = (
    "Bienvenido a \n"
    "                            ____   _____ \n"
    "                           / __ \\ / ____|\n"
    "  _ __ ___   __ _ _ __ ___| |  | | (___  \n"
    " | '_ ` _ \\ / _` | '__/ __| |  | |\\___ \\ \n"
    " | | | | | | (_| | | | (__| |__| |____) |\n"
    " |_| |_| |_|\\__,_|_|  \\___|\\____/|_____/ \n"
    "\n"
    "Wait for it..."
)

_HELP = (
    "HELP",
    "   Comandos disponibles\n",
    "- fibonacci: imprime la serie de fibonacci hasta que se corte su ejecucion\n",
    "- primos: imprime los numeros primos hasta que se corte su ejecucion\n",
    "- time: imprime el dia y la hora del sistema\n",
    "- inforeg: imprime el valor de los registros si la tecla especial fue presionada",
    "- printmem: realiza un vuelco de memoria de 32 bytes a partir de la direccion recibida como argumento\n",
    "- div0: verifica excepcion de division por 0\n",
    "- ps: imprime todos los procesos corriendose con su informacion\n",
    "- clear: limpia la consola\n",
    "- mmtest: corre el test de memory manager\n",
    "- mmstatus: muestra el estado de la memoria\n",
    "- processtest: corre el test de procesos\n",
    "- semtest: corre el test de semaforos con los parametros cantidad de ciclos y un booleano para saber si usar semaforos\n",
    "- semstatus: imprime el estado de los semaforos\n",
    "- pipestatus: imprime el estado de los pipes\n",
    "- phylo: corre e imprime el problema de los filosofos\n",
    "- wc: imprime la cantidad de lineas del input\n",
    "- filter: imprime el input sin vocales\n",
    "- loop: imprime un mensaje con el pid del proceso cada una cantidad de segundos\n",
    "- cat: imprime el input por salida estandar\n",
    "- invalidopcode: verifica funcionameiento de excepcion de invalid opcode\n",
)


def _to_int32(value: int) -> int:
    return ((value + (1 << 31)) & _U32) - (1 << 31)


def fibonacci() -> Iterator[int]:
    """The Fibonacci numbers from 1, 1, wrapping as 32-bit signed integers."""
    first = second = 1
    yield first
    yield second
    while True:
        first, second = second, _to_int32(first + second)
        yield second


def primes() -> Iterator[int]:
    """Every prime from 2 upwards."""
    found: list[int] = []
    candidate = 2
    while True:
        if all(candidate % p for p in found if p * p <= candidate):
            found.append(candidate)
            yield candidate
        candidate += 1


def help_text() -> str:
    """The list of commands shown by ``help``."""
    return "".join(_HELP)


def banner() -> str:
    """The welcome screen printed at start-up."""
    return _BANNER