import os
import numpy as np
import pickle as pkl


class Writer:
    """
    A class to handle VUMPS I/O. Maintains a 'console file' to store
    console output, a 'data file' to save per-iteration diagnostics to, and
    a pickle directory to save checkpoints and the final state.

    MEMBERS
    -------
    self.directory: Path to the output directory, or None to print to
                    console only.
    self.pickle_directory: Path to the directory where .pkl files are saved.
    self.console_file: Path to the file where console output is saved.
    self.data_file : Path to the file where numeric data is saved.

    PUBLIC METHODS
    --------------
    write: Prints a string to console and then appends it to
           self.console_file.
    data_write: Appends a row of numbers to self.data_file.
    pickle: Saves an object to self.pickle_directory.
    """
    def __init__(self, dirpath=None,
                 consolefilename="console_output.txt",
                 datafilename="data.txt",
                 headers=None):
        """
        Instantiates the writer and prepares the output directories.

        PARAMETERS
        ----------
        dirpath: Path to the directory where output is to be saved. It will
                 be created if it doesn't exist. A subdirectory
                 dirpath/pickles will also be created. If None, nothing is
                 saved and write() only prints.

        consolefilename: Saves the strings fed to Writer.write().
        datafilename : Saves numeric data fed to Writer.data_write().
        headers  : A list of strings. Each will be written at the beginning
                   of datafile as a header. For example, headers=["A", "B"]
                   will result in 'datafile' beginning with
                   # [0] = A
                   # [1] = B
                   This is meant to indicate that e.g.
                   A = np.loadtxt(datafilename)[:, 0].
        """
        self.directory = dirpath
        self.pickle_directory = None
        self.console_file = None
        self.data_file = None
        if dirpath is None:
            return

        if not os.path.exists(dirpath):
            os.makedirs(dirpath)
        self.pickle_directory = os.path.join(self.directory, "pickles")

        if not os.path.exists(self.pickle_directory):
            os.makedirs(self.pickle_directory)

        self.console_file = os.path.join(self.directory, consolefilename)
        self.data_file = os.path.join(self.directory, datafilename)

        if headers is None:
            headers = []
        the_header = ["# [" + str(i) + "] = " + header + "\n"
                      for i, header in enumerate(headers)]
        with open(self.data_file, "w") as f:
            f.writelines(the_header)

    def write(self, outstring, verbose=True):
        """
        Prints a string to console and then appends it, along with a newline,
        to self.console_file. If verbose is False, saves to self.console_file
        without printing to console.
        """
        if verbose:
            print(outstring)
        if self.console_file is None:
            return
        with open(self.console_file, "a+") as f:
            f.write(outstring+"\n")

    def data_write(self, data):
        """
        Appends the data in the array 'data' to self.data_file. data should
        represent a row of that file, e.g. each computed observable
        at a given iteration in order.
        """
        if self.data_file is None:
            return
        data = np.asarray(data)
        to_write = data.reshape((1, data.size))
        with open(self.data_file, "ab") as f:
            np.savetxt(f, to_write)

    def pickle(self, to_pickle, timestep: int, name=None):
        """
        Pickles the data in to_pickle under the name
        self.pickle_directory/name_t{timestep}.pkl, and returns that path
        (None if the Writer has no directory).
        """
        if self.pickle_directory is None:
            return None
        if name is not None:
            fend = name + "_t" + str(timestep) + ".pkl"
        else:
            fend = "_t" + str(timestep) + ".pkl"
        fname = os.path.join(self.pickle_directory, fend)
        self.write("Pickling to " + fname)
        with open(fname, "wb") as f:
            pkl.dump(to_pickle, f)
        return fname


def unpickle(fname):
    """
    Loads an object saved by Writer.pickle.
    """
    with open(fname, "rb") as f:
        return pkl.load(f)
